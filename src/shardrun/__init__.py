"""shardrun: shard test files across CI runners and run them on parallel workers."""

__version__ = "0.1.0"
