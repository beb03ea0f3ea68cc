"""Post-hoc evaluation of coevolved body/brain and maze/navigator populations."""

__version__ = "0.1.0"
