"""
League (source group) configuration for transfer syncs.

Each league carries a priority tier and one inclusion flag per strategy.
A league runs under a strategy iff its flag for that strategy is set.
"""
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Sequence

from app.services.sync.strategy import SyncStrategy


@dataclass(frozen=True)
class LeagueConfig:
    api_league_id: int
    name: str
    tier: int
    include_in_normal: bool
    include_in_deadline_day: bool
    include_in_emergency: bool

    def included_in(self, strategy: SyncStrategy) -> bool:
        strategy = SyncStrategy(strategy)
        if strategy == SyncStrategy.NORMAL:
            return self.include_in_normal
        if strategy == SyncStrategy.DEADLINE_DAY:
            return self.include_in_deadline_day
        return self.include_in_emergency

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_LEAGUE_CONFIGS: tuple[LeagueConfig, ...] = (
    # Tier 1: always synced
    LeagueConfig(39, "Premier League", 1, True, True, True),
    LeagueConfig(140, "La Liga", 1, True, True, True),
    LeagueConfig(135, "Serie A", 1, True, True, True),
    LeagueConfig(78, "Bundesliga", 1, True, True, True),
    LeagueConfig(61, "Ligue 1", 1, True, True, True),
    # Tier 2: skipped in emergency mode
    LeagueConfig(94, "Eredivisie", 2, True, True, False),
    LeagueConfig(106, "Primeira Liga", 2, True, True, False),
    LeagueConfig(60, "Serie A", 2, True, True, False),
    # Tier 3: deadline day only
    LeagueConfig(2, "Champions League", 3, False, True, False),
    LeagueConfig(3, "Europa League", 3, False, True, False),
)


def leagues_for_strategy(
    strategy: SyncStrategy,
    configs: Sequence[LeagueConfig] = DEFAULT_LEAGUE_CONFIGS,
) -> List[LeagueConfig]:
    """Leagues included under ``strategy``, in configuration order."""
    return [league for league in configs if league.included_in(strategy)]
