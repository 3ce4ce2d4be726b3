"""Sidecar state files"""
from .sidecar import load_descriptor, save_descriptor, source_path

__all__ = ["load_descriptor", "save_descriptor", "source_path"]
