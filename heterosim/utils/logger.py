# -*- coding: utf-8 -*-
"""
Minimal timestamped logger used by workflows and the CLI.
"""
import sys, time

def _stamp() -> str: return time.strftime('%H:%M:%S')

def info(msg: str):  print(f"[{_stamp()}] {msg}", file=sys.stdout)
def warn(msg: str):  print(f"[{_stamp()}] WARNING: {msg}", file=sys.stderr)
def error(msg: str): print(f"[{_stamp()}] ERROR: {msg}", file=sys.stderr)
