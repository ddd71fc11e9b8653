"""
wren: asset packaging and runtime loading.

Build side lives in ``wren.pipeline`` and ``wren.dac``, runtime side in
``wren.assets``.
"""

__version__ = "0.1.0"
