"""deptree: bidirectional dependency trees for code symbols."""

__version__ = "0.3.0"
