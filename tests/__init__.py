"""
Graph Rewriter Test Suite
=========================

测试模块组织：

tests/
├── framework/                    # 核心框架测试
│   ├── test_core.py                  # Node / Function 模型与图变更
│   ├── test_topological_sort.py      # 拓扑排序
│   ├── test_pattern_matcher.py       # 模式匹配 (Op / Label / Any)
│   ├── test_infrastructure.py        # OptimizationPipeline 与配置
│   └── test_logging.py               # 日志系统测试
│
└── transforms/                   # 优化 Pass 测试
    └── scalar/
        └── test_algebraic_simplify.py

运行测试：
    python -m pytest tests/ -v
    python -m unittest discover tests
"""
