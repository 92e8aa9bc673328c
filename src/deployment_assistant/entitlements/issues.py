"""Recording of recoverable data-quality warnings."""

import logging
from typing import Optional

from deployment_assistant.common.exceptions import DataQualityWarning

logger = logging.getLogger(__name__)

IssueSink = Optional[list[DataQualityWarning]]


def record_issue(issues: IssueSink, warning: DataQualityWarning) -> None:
    """Log a data-quality warning and append it to ``issues`` when given."""
    logger.warning(
        "%s (snapshot=%s, product=%s): %s",
        warning.kind, warning.snapshot_id, warning.product_code, warning.message,
    )
    if issues is not None:
        issues.append(warning)
