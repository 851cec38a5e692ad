import sys

from services.config.env import configure_logging, get_database_config
from .database import init_db, make_engine


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if not args or args[0] != "init-db":
        print("Usage: python -m services.storage.cli init-db [DATABASE_URL]")
        sys.exit(2)
    configure_logging()
    url = args[1] if len(args) > 1 else get_database_config().url
    engine = make_engine(url)
    try:
        init_db(engine)
    finally:
        engine.dispose()
    print(f"Initialised tables at {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()
