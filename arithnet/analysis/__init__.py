"""Verification and benchmarking of trained networks."""

from .verification import (
    BenchmarkReport,
    ImageCheck,
    VerificationReport,
    benchmark_report,
    check_image,
    format_failure,
    verify_network,
)

__all__ = [
    'BenchmarkReport',
    'ImageCheck',
    'VerificationReport',
    'benchmark_report',
    'check_image',
    'format_failure',
    'verify_network',
]
