"""
Chunkwise
Chunked document model and multi-strategy summarization engine.

Subpackages:
- chunkwise.ai: Model invocation (ModelInvoker, OllamaChatInvoker)
- chunkwise.jobs: Job records, store and manager
- chunkwise.parallel: Executor strategies for running jobs
- chunkwise.summarization: Strategies, budget allocation, repair loop
"""

__version__ = "0.1.0"
