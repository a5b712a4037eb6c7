"""
Domain models — configuration, linking and test-harness types.

All models are re-exported here for convenient access:

    from rokukit.core.models import RokuProject, ModuleCatalog, TestEvent
"""

from rokukit.core.models.linking import (
    ALWAYS_REQUIRED_RUNTIME,
    ComponentDescriptor,
    DependencyResult,
    MergePlan,
    MergeReport,
    ModuleCatalog,
)
from rokukit.core.models.project import (
    AppLayout,
    BuildPaths,
    DeviceSettings,
    RokuProject,
    TestSettings,
)
from rokukit.core.models.testing import EVENT_TYPES, TestEvent, TestSummary

__all__ = [
    # linking.py
    "ALWAYS_REQUIRED_RUNTIME",
    "ComponentDescriptor",
    "DependencyResult",
    "MergePlan",
    "MergeReport",
    "ModuleCatalog",
    # project.py
    "AppLayout",
    "BuildPaths",
    "DeviceSettings",
    "RokuProject",
    "TestSettings",
    # testing.py
    "EVENT_TYPES",
    "TestEvent",
    "TestSummary",
]
