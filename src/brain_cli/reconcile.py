"""Stitch a new exchange into the durable conversation series."""

from __future__ import annotations

from brain_cli.models import Episode, Exchange, Series, hash_episode, hash_series


def reconcile_series(
    *,
    series_prior: Series | None,
    exchange: Exchange,
    session_id: str | None,
    compaction: bool,
) -> tuple[Episode, Series]:
    """Return the episode that received ``exchange`` and the updated series.

    Three cases, checked in order:

    1. continuation: no compaction and the latest episode carries ``session_id``;
       the exchange is appended and that episode is replaced in place.
    2. compaction split: compaction was flagged and the latest episode belongs to
       ``session_id`` (exact or ``<session_id>/<n>``); a new episode is appended
       with id ``<session_id>/<prior episode count>``.
    3. new window: anything else appends a new episode keyed by ``session_id``.
    """

    episodes_prior = series_prior.episodes if series_prior is not None else ()
    episode_latest = episodes_prior[-1] if episodes_prior else None

    is_continuation = (
        not compaction
        and session_id is not None
        and episode_latest is not None
        and episode_latest.exid == session_id
    )
    if is_continuation:
        exchanges = (*episode_latest.exchanges, exchange)
        episode = Episode(
            hash=hash_episode(session_id, exchanges),
            exid=episode_latest.exid,
            exchanges=exchanges,
        )
        episodes = (*episodes_prior[:-1], episode)
    else:
        is_compaction_split = (
            compaction
            and session_id is not None
            and episode_latest is not None
            and episode_latest.exid is not None
            and (
                episode_latest.exid == session_id
                or episode_latest.exid.startswith(f"{session_id}/")
            )
        )
        exid = f"{session_id}/{len(episodes_prior)}" if is_compaction_split else session_id
        episode = Episode(
            hash=hash_episode(session_id, (exchange,)),
            exid=exid,
            exchanges=(exchange,),
        )
        episodes = (*episodes_prior, episode)

    series = Series(hash=hash_series(session_id), exid=session_id, episodes=episodes)
    return episode, series
