"""Node interpreter: performs one node's effect and reports what to do next."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from flowline.constants import WAITING_ON_NODE_KEY, delay_done_key, resume_at_key
from flowline.engine.conditions import evaluate_condition
from flowline.errors import NodeConfigurationError
from flowline.gateway.base import MessagingGateway
from flowline.schemas.enums import DELAY_UNIT_MILLIS, NodeType, normalize_delay_unit
from flowline.schemas.execution_models import Contact, StepResult
from flowline.schemas.graph_models import Node
from flowline.timeutils import Clock, now_millis

LOGGER = logging.getLogger(__name__)

NAME_PLACEHOLDER = "{{name}}"
CONDITION_TRUE = "yes"
CONDITION_FALSE = "no"

NodeHandler = Callable[[Node, Contact, dict[str, Any]], Awaitable[StepResult]]


class NodeInterpreter:
    """Closed dispatch table over ``NodeType``.

    ``assign``, ``webhook`` and ``collectInput`` are explicit pass-through
    handlers until their real effects exist; a node type without an entry in
    the table is a configuration error, never skipped.
    """

    def __init__(self, gateway: MessagingGateway, *, clock: Clock = now_millis) -> None:
        self.gateway = gateway
        self._clock = clock
        self._handlers: dict[NodeType, NodeHandler] = {
            NodeType.TRIGGER: self._pass_through,
            NodeType.MESSAGE: self._send_message,
            NodeType.DELAY: self._delay,
            NodeType.CONDITION: self._condition,
            NodeType.ASSIGN: self._pass_through,
            NodeType.WEBHOOK: self._pass_through,
            NodeType.COLLECT_INPUT: self._pass_through,
        }

    async def execute(
        self,
        node: Node,
        contact: Contact,
        variables: dict[str, Any],
    ) -> StepResult:
        handler = self._handlers.get(node.type)
        if handler is None:
            raise NodeConfigurationError(f"No handler registered for node type {node.type}")
        return await handler(node, contact, variables)

    async def _send_message(
        self,
        node: Node,
        contact: Contact,
        variables: dict[str, Any],
    ) -> StepResult:
        template = str(node.data.get("message") or "")
        if not template:
            LOGGER.info("Message node %s has no text; nothing sent", node.id)
            return StepResult.proceed()
        text = template.replace(NAME_PLACEHOLDER, contact.name)
        receipt = await self.gateway.send(contact.phone, text)
        LOGGER.info("Message node %s delivered as %s", node.id, receipt.message_id)
        return StepResult.proceed()

    async def _delay(
        self,
        node: Node,
        contact: Contact,
        variables: dict[str, Any],
    ) -> StepResult:
        if variables.get(delay_done_key(node.id)):
            return StepResult.proceed()
        wake_at = self._clock() + delay_millis(node.data)
        return StepResult.pause(
            {
                resume_at_key(node.id): wake_at,
                WAITING_ON_NODE_KEY: node.id,
            }
        )

    async def _condition(
        self,
        node: Node,
        contact: Contact,
        variables: dict[str, Any],
    ) -> StepResult:
        matched = evaluate_condition(node.data, contact=contact, variables=variables)
        return StepResult.proceed(CONDITION_TRUE if matched else CONDITION_FALSE)

    async def _pass_through(
        self,
        node: Node,
        contact: Contact,
        variables: dict[str, Any],
    ) -> StepResult:
        LOGGER.debug("Node %s (%s) has no effect yet; continuing", node.id, node.type.value)
        return StepResult.proceed()


def delay_millis(data: dict[str, Any]) -> int:
    """Return the configured wait in milliseconds.

    Reads ``duration`` + ``unit`` (hours when unset, as the editor shows it);
    the older ``delay`` key is a minute count.
    """
    if "duration" in data:
        amount = _parse_amount(data.get("duration"))
        raw_unit = str(data.get("unit") or "hours")
    else:
        amount = _parse_amount(data.get("delay"))
        raw_unit = "minutes"
    try:
        unit = normalize_delay_unit(raw_unit)
    except ValueError as exc:
        raise NodeConfigurationError(str(exc)) from exc
    return int(amount * DELAY_UNIT_MILLIS[unit])


def _parse_amount(raw: Any) -> float:
    if raw is None or raw == "":
        return 0.0
    try:
        amount = float(raw)
    except (TypeError, ValueError) as exc:
        raise NodeConfigurationError(f"Delay amount is not a number: {raw!r}") from exc
    if amount < 0:
        raise NodeConfigurationError(f"Delay amount cannot be negative: {raw!r}")
    return amount
