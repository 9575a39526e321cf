"""
deepsearch/capture

Request template capture: correlation of observed traffic and the template store.
"""

from deepsearch.capture.correlator import CaptureCorrelator
from deepsearch.capture.har_source import iter_har_observations, publish_har
from deepsearch.capture.page_status import PageStatus, parse_page_status
from deepsearch.capture.template_store import RequestTemplateStore

__all__ = [
    "CaptureCorrelator",
    "iter_har_observations",
    "PageStatus",
    "parse_page_status",
    "publish_har",
    "RequestTemplateStore",
]
