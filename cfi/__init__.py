"""cfi - keep GPFS fileset inode limits ahead of usage."""

__version__ = "0.1.0"
