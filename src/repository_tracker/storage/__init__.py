"""Storage module for the persisted repository dataset."""

from .dataset import DatasetError, DatasetStore
from .merge import merge_collection, merge_record

__all__ = ["DatasetError", "DatasetStore", "merge_collection", "merge_record"]
