"""
Low Music CLI - entry point.

Sub-commands scan the library, list and search songs, manage playlists and
likes, export cover art, and play a queue through mpv.
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Optional, Sequence

from loguru import logger
from rich.table import Table

from low_music.context import AppContext
from low_music.core import config as config_module
from low_music.core.output import get_console, log, setup_loguru
from low_music.domain.library import (
    Song,
    get_display_name,
    get_duration_str,
    get_library_stats,
    get_songs_by_album,
    get_songs_by_artist,
    read_cover_art,
    search_songs,
)
from low_music.domain.playback import LoopMode, PlayerState, format_time
from low_music.exceptions import LowMusicError, PlaybackError


def _resolve(items: Sequence[Any], ref: str, kind: str) -> Optional[Any]:
    """Find an item by exact id or unique id prefix."""
    for item in items:
        if item.id == ref:
            return item
    matches = [item for item in items if item.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        log(f"Ambiguous {kind} id '{ref}' matches {len(matches)} entries", "warning")
    else:
        log(f"No {kind} with id '{ref}'", "error")
    return None


def _song_table(songs: Sequence[Song], title: str, ctx: AppContext) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Time", justify="right")
    table.add_column("Plays", justify="right")
    table.add_column("♥", justify="center")

    for i, song in enumerate(songs, start=1):
        stats = ctx.stats.get_song_stats(song.id)
        table.add_row(
            str(i),
            song.id[:8],
            song.title,
            song.artist,
            song.album,
            get_duration_str(song),
            str(stats.play_count),
            "♥" if stats.liked else "",
        )
    return table


def run_scan(ctx: AppContext, folder: Optional[str], workers: Optional[int]) -> int:
    """Scan the music folder (or a newly chosen one) and report the result."""
    if workers is not None:
        ctx.config.music.scan_workers = max(1, workers)

    failures: list[Any] = []
    ctx.library.subscribe(
        lambda event, payload: failures.append(payload) if event == "scan-failed" else None
    )

    with get_console().status("Scanning library..."):
        if folder:
            songs = ctx.library.select_folder(str(Path(folder).expanduser().resolve()))
        else:
            if not ctx.library.music_folder:
                log("No music folder set. Run: low-music scan FOLDER", "error")
                return 1
            songs = ctx.library.scan_library()

    if failures:
        log(f"Scan failed: {failures[0]}", "error")
        return 1

    stats = get_library_stats(songs)
    log(
        f"Library scan complete: {stats['total_songs']} songs, "
        f"{stats['artists']} artists, {stats['albums']} albums "
        f"({stats['total_duration_str']})",
        "success",
    )
    return 0


def run_library(
    ctx: AppContext,
    query: Optional[str],
    artist: Optional[str] = None,
    album: Optional[str] = None,
) -> int:
    songs = ctx.library.songs
    filters = []
    if query:
        songs = search_songs(songs, query)
        filters.append(f"matching '{query}'")
    if artist:
        songs = get_songs_by_artist(songs, artist)
        filters.append(f"by '{artist}'")
    if album:
        songs = get_songs_by_album(songs, album)
        filters.append(f"on '{album}'")

    if filters:
        title = "Songs " + ", ".join(filters)
    else:
        title = f"Library: {ctx.library.music_folder or '(no folder)'}"

    get_console().print(_song_table(songs, title, ctx))
    return 0


def _format_played(last_played: Optional[float]) -> str:
    if last_played is None:
        return "-"
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(last_played))


def run_stats(ctx: AppContext, top: int, recent: int = 0) -> int:
    console = get_console()
    library_stats = get_library_stats(ctx.library.songs)
    console.print(
        f"{library_stats['total_songs']} songs, "
        f"{library_stats['total_duration_str']} total, "
        f"{len(ctx.stats.liked_song_ids())} liked"
    )

    by_id = {song.id: song for song in ctx.library.songs}
    table = Table(title=f"Top {top} most played")
    table.add_column("Plays", justify="right")
    table.add_column("Title")
    table.add_column("Last played")
    for song_id, stats in ctx.stats.most_played(top):
        song = by_id.get(song_id)
        table.add_row(
            str(stats.play_count),
            song.title if song else f"(removed) {song_id[:8]}",
            _format_played(stats.last_played),
        )
    console.print(table)

    if recent > 0:
        recent_table = Table(title=f"{recent} recently played")
        recent_table.add_column("Last played")
        recent_table.add_column("Title")
        recent_table.add_column("Plays", justify="right")
        for song_id, stats in ctx.stats.recently_played(recent):
            song = by_id.get(song_id)
            recent_table.add_row(
                _format_played(stats.last_played),
                song.title if song else f"(removed) {song_id[:8]}",
                str(stats.play_count),
            )
        console.print(recent_table)
    return 0


def run_like(ctx: AppContext, song_ref: str) -> int:
    song = _resolve(ctx.library.songs, song_ref, "song")
    if song is None:
        return 1
    liked = ctx.stats.toggle_like(song.id)
    log(f"{'Liked' if liked else 'Unliked'}: {song.title}", "success")
    return 0


def run_prune_stats(ctx: AppContext) -> int:
    removed = ctx.stats.prune_orphans(song.id for song in ctx.library.songs)
    log(f"Removed {removed} stats entries for songs no longer in the library")
    return 0


def run_cover(ctx: AppContext, song_ref: str, output: str) -> int:
    song = _resolve(ctx.library.songs, song_ref, "song")
    if song is None:
        return 1

    cover = read_cover_art(song.path)
    if cover is None:
        log(f"No embedded cover art in {song.path}", "warning")
        return 1

    out_path = Path(output).expanduser()
    if not out_path.suffix:
        out_path = out_path.with_suffix(cover.extension)
    out_path.write_bytes(cover.data)
    log(f"Saved cover art ({cover.mime}, {len(cover.data)} bytes) to {out_path}", "success")
    return 0


def run_playlist(ctx: AppContext, args: argparse.Namespace) -> int:
    """Dispatch `playlist` sub-commands."""
    store = ctx.playlists
    action = args.playlist_action

    if action == "list":
        table = Table(title="Playlists")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Songs", justify="right")
        table.add_column("Created")
        for playlist in store.playlists:
            table.add_row(
                playlist.id[:8], playlist.name, str(len(playlist.songs)), playlist.created_at[:10]
            )
        get_console().print(table)
        return 0

    if action == "create":
        playlist = store.create_playlist(" ".join(args.name))
        log(f"Created playlist '{playlist.name}' ({playlist.id[:8]})", "success")
        return 0

    playlist = _resolve(store.playlists, args.playlist_id, "playlist")
    if playlist is None:
        return 1

    if action == "show":
        get_console().print(_song_table(playlist.songs, playlist.name, ctx))
        return 0

    if action == "delete":
        store.delete_playlist(playlist.id)
        log(f"Deleted playlist '{playlist.name}'", "success")
        return 0

    if action == "rename":
        old_name = playlist.name
        store.rename_playlist(playlist.id, " ".join(args.name))
        log(f"Renamed '{old_name}' to '{playlist.name}'", "success")
        return 0

    song = _resolve(ctx.library.songs if action == "add" else playlist.songs, args.song_id, "song")
    if song is None:
        return 1

    if action == "add":
        if store.add_song_to_playlist(playlist.id, song):
            log(f"Added '{song.title}' to '{playlist.name}'", "success")
        else:
            log(f"'{song.title}' is already in '{playlist.name}'", "warning")
        return 0

    store.remove_song_from_playlist(playlist.id, song.id)
    log(f"Removed '{song.title}' from '{playlist.name}'", "success")
    return 0


def run_play(
    ctx: AppContext,
    playlist_ref: Optional[str],
    start: int,
    shuffle: bool,
    loop: str,
    liked: bool = False,
) -> int:
    """Play the library, a playlist or the liked songs until the queue ends or Ctrl+C."""
    if liked:
        songs = ctx.library.get_songs(ctx.stats.liked_song_ids())
    elif playlist_ref:
        playlist = _resolve(ctx.playlists.playlists, playlist_ref, "playlist")
        if playlist is None:
            return 1
        songs = playlist.songs
    else:
        songs = ctx.library.songs

    if not songs:
        log("Nothing to play: the queue is empty", "warning")
        return 1

    try:
        player = ctx.create_player()
    except PlaybackError as e:
        log(f"Could not start mpv: {e}", "error")
        return 1

    console = get_console()
    last_song_id: list[Optional[str]] = [None]

    def on_player_event(event: str, payload: Any) -> None:
        if event == "playback-error":
            log(f"Playback error: {payload}", "error")
        elif event == "state-changed":
            state: PlayerState = payload
            song = state.current_song
            if song is not None and song.id != last_song_id[0]:
                last_song_id[0] = song.id
                console.print(f"▶ {get_display_name(song)} [{get_duration_str(song)}]")

    player.subscribe(on_player_event)
    if shuffle:
        player.toggle_shuffle()
    for _ in range(LoopMode.parse(loop).value):
        player.toggle_loop()

    try:
        player.play_context(songs, min(max(0, start), len(songs) - 1))
        while player.state.is_playing:
            player.backend.poll()
            time.sleep(ctx.config.player.poll_interval)
    except KeyboardInterrupt:
        state = player.state
        console.print(f"\nStopped at {format_time(state.current_time)}")
        player.stop()
    finally:
        ctx.close()

    return 1 if player.state.error else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="low-music",
        description="Low Music - local music library and player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Scan the music folder")
    scan_parser.add_argument("folder", nargs="?", help="Choose a new music folder")
    scan_parser.add_argument("--workers", type=int, help="Tag reader threads")

    library_parser = subparsers.add_parser("library", help="List library songs")
    library_parser.add_argument("--search", help="Filter by title/artist/album/file name")
    library_parser.add_argument("--artist", help="Only songs whose artist contains this")
    library_parser.add_argument("--album", help="Only songs whose album contains this")

    stats_parser = subparsers.add_parser("stats", help="Show play statistics")
    stats_parser.add_argument("--top", type=int, default=10, help="Number of songs")
    stats_parser.add_argument(
        "--recent", type=int, default=0, help="Also list this many recently played songs"
    )

    like_parser = subparsers.add_parser("like", help="Toggle like on a song")
    like_parser.add_argument("song_id", help="Song id or unique prefix")

    subparsers.add_parser("prune-stats", help="Drop stats for songs no longer in the library")

    cover_parser = subparsers.add_parser("cover", help="Export embedded cover art")
    cover_parser.add_argument("song_id", help="Song id or unique prefix")
    cover_parser.add_argument("output", help="Output image path")

    playlist_parser = subparsers.add_parser("playlist", help="Manage playlists")
    playlist_sub = playlist_parser.add_subparsers(dest="playlist_action", required=True)
    playlist_sub.add_parser("list", help="List playlists")
    create_parser = playlist_sub.add_parser("create", help="Create a playlist")
    create_parser.add_argument("name", nargs="+")
    for action in ("show", "delete"):
        action_parser = playlist_sub.add_parser(action, help=f"{action.capitalize()} a playlist")
        action_parser.add_argument("playlist_id")
    rename_parser = playlist_sub.add_parser("rename", help="Rename a playlist")
    rename_parser.add_argument("playlist_id")
    rename_parser.add_argument("name", nargs="+")
    for action in ("add", "remove"):
        action_parser = playlist_sub.add_parser(
            action, help=f"{action.capitalize()} a song"
        )
        action_parser.add_argument("playlist_id")
        action_parser.add_argument("song_id")

    play_parser = subparsers.add_parser("play", help="Play the library or a playlist")
    play_source = play_parser.add_mutually_exclusive_group()
    play_source.add_argument("--playlist", help="Playlist id or unique prefix")
    play_source.add_argument("--liked", action="store_true", help="Play liked songs")
    play_parser.add_argument("--start", type=int, default=0, help="Start index in the queue")
    play_parser.add_argument("--shuffle", action="store_true")
    play_parser.add_argument(
        "--loop", choices=["off", "all", "one"], default="off", help="Loop mode"
    )

    return parser


def dispatch(ctx: AppContext, args: argparse.Namespace) -> int:
    command = args.subcommand
    if command == "scan":
        return run_scan(ctx, args.folder, args.workers)
    if command == "library":
        return run_library(ctx, args.search, args.artist, args.album)
    if command == "stats":
        return run_stats(ctx, args.top, args.recent)
    if command == "like":
        return run_like(ctx, args.song_id)
    if command == "prune-stats":
        return run_prune_stats(ctx)
    if command == "cover":
        return run_cover(ctx, args.song_id, args.output)
    if command == "playlist":
        return run_playlist(ctx, args)
    if command == "play":
        return run_play(ctx, args.playlist, args.start, args.shuffle, args.loop, args.liked)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the low-music command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.subcommand:
        parser.print_help()
        return 0

    cfg = config_module.load_config()
    config_module.ensure_directories()

    log_file = (
        Path(cfg.logging.log_file)
        if cfg.logging.log_file
        else config_module.get_data_dir() / "low-music.log"
    )
    setup_loguru(
        log_file,
        level=cfg.logging.level,
        max_file_size_mb=cfg.logging.max_file_size_mb,
        backup_count=cfg.logging.backup_count,
        console_output=cfg.logging.console_output,
    )

    try:
        ctx = AppContext.create(cfg)
        return dispatch(ctx, args)
    except ValueError as e:
        log(str(e), "error")
        return 2
    except LowMusicError as e:
        logger.exception("Command failed")
        log(str(e), "error")
        return 1


def main_entry() -> None:
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
