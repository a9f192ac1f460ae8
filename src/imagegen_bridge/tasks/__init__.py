"""
Job execution: single-job pipeline and bounded-concurrency batches.
"""
from .batch_plan import BatchDefinition, BatchRequest, load_batch_definition
from .batch_runner import BatchRunner
from .generation import ImageGenerator

__all__ = ["BatchRunner", "BatchDefinition", "BatchRequest", "ImageGenerator", "load_batch_definition"]
