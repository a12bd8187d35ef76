"""TC attachment of the BPF classifier to an interface."""

import errno
import logging
from dataclasses import dataclass, field
from typing import Callable

from pyroute2 import IPRoute
from pyroute2.netlink.exceptions import NetlinkError

from .constants import (
    EGRESS_PARENT,
    ETH_P_ALL,
    FILTER_HANDLE,
    FILTER_PRIORITY,
    INGRESS_PARENT,
)
from .errors import AttachmentError, ProgramLoadError

logger = logging.getLogger(__name__)

# Step names, in execution order
RESOLVE_INTERFACE = "resolve-interface"
LOAD_PROGRAM = "load-program"
DELETE_QDISC = "delete-qdisc"
ADD_QDISC = "add-qdisc"
ADD_FILTER_INGRESS = "add-filter-ingress"
ADD_FILTER_EGRESS = "add-filter-egress"

# Errors the kernel returns when there is no clsact qdisc to delete
_QDISC_ABSENT_ERRNOS = {errno.ENOENT, errno.EINVAL}


@dataclass
class StepResult:
    """Outcome of one attachment step."""

    step: str
    ok: bool
    error: str | None = None


@dataclass
class AttachmentReport:
    """Outcome of every attachment step that ran."""

    interface: str
    ifindex: int | None = None
    steps: list[StepResult] = field(default_factory=list)

    def add(
        self, step: str, error: Exception | None = None, ok: bool | None = None
    ) -> StepResult:
        if ok is None:
            ok = error is None
        result = StepResult(step=step, ok=ok, error=None if error is None else str(error))
        self.steps.append(result)
        return result

    def get(self, step: str) -> StepResult | None:
        for result in self.steps:
            if result.step == step:
                return result
        return None

    def _ok(self, step: str) -> bool:
        result = self.get(step)
        return result is not None and result.ok

    @property
    def ingress(self) -> bool:
        return self._ok(ADD_FILTER_INGRESS)

    @property
    def egress(self) -> bool:
        return self._ok(ADD_FILTER_EGRESS)

    @property
    def degraded(self) -> bool:
        """True if any step failed without aborting the attachment."""
        return any(not result.ok for result in self.steps)


class TCAttachment:
    """Attach a BPF classifier to the clsact ingress and egress hooks of an interface.

    The loader is called once during attach() and must return a
    LoadedProgram (or anything exposing fd, name and close()).
    """

    def __init__(
        self,
        interface: str,
        loader: Callable[[], object],
        ipr: IPRoute | None = None,
        keep_attached: bool = False,
    ):
        self.interface = interface
        self.loader = loader
        self.ipr = ipr if ipr is not None else IPRoute()
        self.keep_attached = keep_attached
        self.ifindex: int | None = None
        self.program = None
        self.report = AttachmentReport(interface=interface)
        self._qdisc_created = False

    def attach(self):
        """Install clsact and both filters; return the loaded program.

        Raises AttachmentError if the interface is unknown, the program
        cannot be loaded or the clsact qdisc cannot be created. A filter
        that fails to attach is logged and recorded in self.report.
        """
        report = self.report

        # Resolve the interface
        indices = self.ipr.link_lookup(ifname=self.interface)
        if not indices:
            error = AttachmentError(RESOLVE_INTERFACE, f"interface {self.interface!r} not found")
            report.add(RESOLVE_INTERFACE, error)
            logger.error("Cannot find network interface %s", self.interface)
            raise error
        self.ifindex = report.ifindex = indices[0]
        report.add(RESOLVE_INTERFACE)

        # Load the program
        try:
            self.program = self.loader()
        except ProgramLoadError as e:
            report.add(LOAD_PROGRAM, e)
            logger.error("Loading BPF program failed: %s", e)
            raise AttachmentError(LOAD_PROGRAM, str(e)) from e
        report.add(LOAD_PROGRAM)

        # Remove any previous clsact qdisc (and every filter hanging off it)
        try:
            self.ipr.tc("del", "clsact", self.ifindex)
            report.add(DELETE_QDISC)
        except NetlinkError as e:
            absent = e.code in _QDISC_ABSENT_ERRNOS
            report.add(DELETE_QDISC, e, ok=absent)
            if absent:
                logger.debug("No previous clsact qdisc on %s", self.interface)
            else:
                logger.warning("Cannot delete clsact qdisc on %s: %s", self.interface, e)

        # Add clsact qdisc (supports both ingress and egress)
        try:
            self.ipr.tc("add", "clsact", self.ifindex)
        except NetlinkError as e:
            report.add(ADD_QDISC, e)
            logger.error("Cannot add clsact qdisc on %s: %s", self.interface, e)
            raise AttachmentError(ADD_QDISC, str(e)) from e
        self._qdisc_created = True
        report.add(ADD_QDISC)

        for step, parent in (
            (ADD_FILTER_INGRESS, INGRESS_PARENT),
            (ADD_FILTER_EGRESS, EGRESS_PARENT),
        ):
            self._add_filter(step, parent)

        logger.info(
            "Attached %s to %s (ingress=%s, egress=%s)",
            self.program.name,
            self.interface,
            report.ingress,
            report.egress,
        )
        return self.program

    def _add_filter(self, step: str, parent: str) -> None:
        try:
            self.ipr.tc(
                "add-filter",
                "bpf",
                self.ifindex,
                FILTER_HANDLE,
                fd=self.program.fd,
                name=self.program.name,
                parent=parent,
                prio=FILTER_PRIORITY,
                protocol=ETH_P_ALL,
                direct_action=True,
            )
            self.report.add(step)
        except NetlinkError as e:
            self.report.add(step, e)
            logger.error("Cannot attach BPF program to %s (%s): %s", self.interface, step, e)

    def detach(self) -> None:
        """Remove the filters and the clsact qdisc we created."""
        if self.ifindex is None:
            return

        for parent in (INGRESS_PARENT, EGRESS_PARENT):
            try:
                self.ipr.tc("del-filter", "bpf", self.ifindex, FILTER_HANDLE, parent=parent)
            except NetlinkError as e:
                logger.debug("Cannot delete filter %s on %s: %s", parent, self.interface, e)

        if self._qdisc_created:
            try:
                self.ipr.tc("del", "clsact", self.ifindex)
            except NetlinkError as e:
                logger.debug("Cannot delete clsact qdisc on %s: %s", self.interface, e)

        self._qdisc_created = False

    def close(self) -> None:
        """Detach (unless keep_attached), release the program and the netlink socket."""
        if not self.keep_attached:
            self.detach()
        if self.program is not None:
            self.program.close()
            self.program = None
        self.ipr.close()
