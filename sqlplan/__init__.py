"""SQL values, expression trees, table schemas, query plan nodes and plan optimizers."""

__version__ = "0.1.0"

__all__ = ["errors", "values", "expression", "normalform", "schema", "nodes", "optimizer"]