"""
Framework Tests - 核心框架测试模块
===================================

- test_core.py              : 节点、函数、消费者边、替换与释放
- test_topological_sort.py  : 拓扑序的合法性、确定性、完整性、环检测
- test_pattern_matcher.py   : Op / Label / Any 匹配语义
- test_infrastructure.py    : OptimizationPipeline、PassRegistry、配置文件
- test_logging.py           : 日志系统配置和级别控制
"""
