"""LUSC - Linux UEFI STUB Creator"""
