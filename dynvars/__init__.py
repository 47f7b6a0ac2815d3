"""dynvars: runtime-defined typed variables for classroom entities.

Operators define typed fields per tenant and class scope; values are stored
in one polymorphic fact table and overlaid onto the serialized form of the
owning entities (stores, scenarios, submissions, store types).
"""

__version__ = "0.1.0"
