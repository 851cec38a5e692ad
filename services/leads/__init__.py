"""Lead capture: append-only record of report requests by email."""
