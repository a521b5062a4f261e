from pytest_archon import archrule


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on Adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match("mailflow.ports*")
        .should_not_import("mailflow.queue*")
        .should_not_import("mailflow.transport*")
        .should_not_import("mailflow.stores*")
        .should_not_import("mailflow.service")
        .should_not_import("mailflow.worker")
        .check("mailflow", only_direct_imports=True)
    )


def test_domain_isolation() -> None:
    """
    Models, policy and exceptions are the lowest level.
    They must not import from ports or any adapter.
    """
    (
        archrule("domain_isolation")
        .match("mailflow.models", "mailflow.policy", "mailflow.exceptions")
        .should_not_import("mailflow.ports*")
        .should_not_import("mailflow.queue*")
        .should_not_import("mailflow.transport*")
        .should_not_import("mailflow.stores*")
        .should_not_import("mailflow.templates*")
        .check("mailflow", only_direct_imports=True)
    )


def test_queue_layering() -> None:
    """
    The queue layer routes messages; it knows nothing about who sends or submits them.
    """
    (
        archrule("queue_layering")
        .match("mailflow.queue*")
        .should_not_import("mailflow.worker")
        .should_not_import("mailflow.service")
        .should_not_import("mailflow.transport*")
        .should_not_import("mailflow.templates*")
        .check("mailflow", only_direct_imports=True)
    )


def test_transport_isolation() -> None:
    """
    Transports only send; retry and routing decisions belong to the worker.
    """
    (
        archrule("transport_isolation")
        .match("mailflow.transport*")
        .should_not_import("mailflow.queue*")
        .should_not_import("mailflow.service")
        .should_not_import("mailflow.worker")
        .should_not_import("mailflow.retry")
        .check("mailflow", only_direct_imports=True)
    )


def test_templates_and_stores_isolation() -> None:
    """
    Rendering and collaborator stores must not reach into messaging or delivery.
    """
    (
        archrule("templates_and_stores_isolation")
        .match("mailflow.templates*", "mailflow.stores*")
        .should_not_import("mailflow.queue*")
        .should_not_import("mailflow.transport*")
        .should_not_import("mailflow.worker")
        .should_not_import("mailflow.service")
        .check("mailflow", only_direct_imports=True)
    )
