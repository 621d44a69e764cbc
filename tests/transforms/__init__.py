"""
Transform Tests - 优化 Pass 测试模块
=====================================

- scalar/test_algebraic_simplify.py : x*0, x*1, x+0 化简
"""
