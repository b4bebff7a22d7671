"""
Main entry point for the helpflow CLI

This allows running the CLI with: python -m helpflow
"""
from .cli import main

if __name__ == "__main__":
    main()
