"""
zk-tickets: anonymous one-time access for registered groups.

Members are admitted to a group as Merkle leaves, the group is frozen, and
each member can then prove membership once per context without revealing
which leaf is theirs.
"""

__version__ = "0.1.0"
