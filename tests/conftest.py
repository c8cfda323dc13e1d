import sys
from pathlib import Path
from typing import Optional, Sequence, Union

import pytest

# Ensure project root is on sys.path so `import compliance_console` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from compliance_console.processing.config import MonitorConfig  # noqa: E402
from compliance_console.processing.models import StatusSnapshot  # noqa: E402
from compliance_console.processing.poller import ProcessingStatusPoller  # noqa: E402
from tests.fixtures.status_fakes import (  # noqa: E402
    ManualTimer,
    RecordingSink,
    ScriptedStatusClient,
)


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def monitor_config() -> MonitorConfig:
    return MonitorConfig(poll_interval_ms=2000, max_attempts=150)


@pytest.fixture
def make_poller(timer, sink, monitor_config):
    """Build a poller wired to the manual timer and recording sink."""

    def _make(
        script: Sequence[Union[StatusSnapshot, Exception]],
        default_target_id: Optional[str] = None,
    ) -> ProcessingStatusPoller:
        return ProcessingStatusPoller(
            client=ScriptedStatusClient(script),
            config=monitor_config,
            notifier=sink,
            timer=timer,
            default_target_id=default_target_id,
        )

    return _make
