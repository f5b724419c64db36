import asyncio
import logging
from typing import Any, Optional, Sequence

from meetlive import context, selectors
from meetlive.models.participant import UNKNOWN_PARTICIPANT, Participant

logger = logging.getLogger(__name__)


class SelectorNameStrategy:
    def __init__(self, selector: str):
        self.selector = selector

    async def resolve(self, element: Any) -> Optional[str]:
        node = await element.query_selector(self.selector)
        if node is None:
            return None
        text = (await node.inner_text() or "").strip()
        if not text:
            return None
        # Name cells may carry extra lines ("Meeting host", etc.); the name is last.
        return text.split("\n")[-1].strip() or None


class NameResolver:
    """Ordered name lookups; the first non-empty match wins."""

    def __init__(self, strategies: Optional[Sequence[SelectorNameStrategy]] = None):
        if strategies is None:
            strategies = [SelectorNameStrategy(s) for s in selectors.NAME_SELECTORS]
        self.strategies = list(strategies)

    async def resolve(self, element: Any) -> str:
        for strategy in self.strategies:
            try:
                name = await strategy.resolve(element)
            except Exception as e:
                logger.debug("Name lookup %r failed: %s", getattr(strategy, "selector", strategy), e)
                continue
            if name:
                return name
        return UNKNOWN_PARTICIPANT


async def has_self_marker(element: Any) -> bool:
    marker = await element.query_selector(selectors.SELF_MARKER)
    if marker is None:
        return False
    return selectors.SELF_MARKER_TEXT in (await marker.text_content() or "")


class ParticipantRegistry:
    def __init__(
        self,
        page: Any,
        bot_name: Optional[str] = None,
        name_resolver: Optional[NameResolver] = None,
        settle_seconds: float = context.PANEL_SETTLE_SECONDS,
    ):
        self.page = page
        self.bot_name = bot_name
        self.name_resolver = name_resolver or NameResolver()
        self.settle_seconds = settle_seconds
        self.participants: list[Participant] = []
        self.call_name: Optional[str] = None
        self.generation = 0

    def is_bot_name(self, name: str) -> bool:
        return bool(self.bot_name) and name.startswith(self.bot_name)

    async def open_panel_once(self) -> bool:
        for selector in selectors.PEOPLE_BUTTON_FALLBACKS:
            button = await self.page.query_selector(selector)
            if button is not None:
                await button.click()
                return True
        logger.warning("People button not found using any selector. Speaker detection may not work.")
        return False

    async def ensure_panel_open(self) -> bool:
        button = await self.page.query_selector(selectors.PEOPLE_BUTTON)
        if button is None:
            logger.warning("People button not found for speaker detection.")
            return False
        if await button.get_attribute("aria-pressed") != "true":
            logger.info("Opening People panel for speaker detection...")
            await button.click()
            await asyncio.sleep(self.settle_seconds)
        return True

    async def refresh(self) -> list[Participant]:
        """Rescan the People panel, replacing the previous list wholesale."""
        if not await self.ensure_panel_open():
            logger.warning("Cannot ensure People panel is open. Skipping participant refresh.")
            return self.participants

        call_el = await self.page.query_selector(selectors.CALL_NAME)
        call_name = (await call_el.inner_text() or "").strip() if call_el is not None else ""
        self.call_name = call_name or "Unknown Call"

        fresh = []
        for index, element in enumerate(await self.page.query_selector_all(selectors.PARTICIPANT_ITEM)):
            participant_id = await element.get_attribute(selectors.PARTICIPANT_ID_ATTRIBUTE)
            if not participant_id:
                logger.debug("Participant element %d has no participant id", index)
                continue
            name = await self.name_resolver.resolve(element)
            fresh.append(Participant(
                participant_id=participant_id,
                display_name=name,
                is_self=await has_self_marker(element),
                is_bot=self.is_bot_name(name),
                element=element,
            ))

        self.participants = fresh
        self.generation += 1
        logger.info("Refreshed %d participants for call %r", len(fresh), self.call_name)
        return fresh

    async def visible_participant_count(self) -> Optional[int]:
        """Number of rows in the participant list, or None if the list is gone."""
        people_list = await self.page.query_selector(selectors.PARTICIPANT_LIST)
        if people_list is None:
            return None
        return len(await people_list.query_selector_all(selectors.PARTICIPANT_LIST_CHILDREN))
