"""Allow running as: python -m lusc"""
from .main import main

main()
