"""
Variant inventory service.

Keeps product stock consistent across the nested ``sizeVariants`` structure,
the derived ``inventory`` aggregate and the legacy flat ``variants`` list.
"""

__version__ = "1.0.0"
