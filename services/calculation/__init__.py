"""Calculation engine: invoice-automation savings model.

- inputs.py: ScenarioInput and request payload validation
- engine.py: policy constants, compute() and JSON helpers
- cli.py: compute a scenario from a JSON file
"""
