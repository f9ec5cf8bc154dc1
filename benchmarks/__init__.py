"""
Benchmark suite for sexpr parsing and encoding performance.

Measures sexpr on S-expression text against JSON libraries reading the
same documents as JSON:
- Python standard library json
- orjson (C-optimized)
- ujson (ultra-fast JSON)

Measures parsing speed, encoding speed and memory usage across
different data types.
"""
