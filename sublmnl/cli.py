"""Command-line interface for sublmnl."""

import argparse
import logging
import sys
from pathlib import Path

from sublmnl import __version__
from sublmnl.audio.audio_utils import check_ffmpeg, format_duration
from sublmnl.catalog import MusicCatalog, VoiceCatalog
from sublmnl.errors import PipelineError, ValidationError
from sublmnl.models import (
    DEFAULT_LANGUAGE,
    DEFAULT_TEMPO,
    DEFAULT_VOLUME,
    CleanupPolicy,
    MusicTrack,
    PipelineConfig,
    SynthesisRequest,
)

CLI_TRACK_ID = "cli"


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="sublmnl",
        description="Genera tracce subliminali: affermazioni sintetizzate e mixate sotto la musica",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "affirmations",
        nargs="*",
        help="Affermazioni da sintetizzare, nell'ordine di riproduzione",
    )
    parser.add_argument(
        "-f", "--file",
        default=None,
        help="File di testo con un'affermazione per riga",
    )
    parser.add_argument(
        "-m", "--music",
        default=None,
        help="Traccia musicale di sottofondo",
    )
    parser.add_argument(
        "--music-duration",
        type=float,
        default=None,
        help="Durata nota della traccia in secondi (altrimenti viene misurata)",
    )
    parser.add_argument(
        "--catalog",
        default=None,
        help="Catalogo musica JSON (usare con --track)",
    )
    parser.add_argument(
        "--track",
        default=None,
        help="Id della traccia nel catalogo",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="File di output (default: subliminal.mp3)",
    )
    parser.add_argument(
        "-v", "--voice",
        default="aria",
        help="Voce da usare (default: aria)",
    )
    parser.add_argument(
        "-l", "--language",
        default=DEFAULT_LANGUAGE,
        help=f"Tag lingua (default: {DEFAULT_LANGUAGE})",
    )
    parser.add_argument(
        "--pitch",
        type=float,
        default=0.0,
        help="Pitch della voce, da -10 a 10 (default: 0)",
    )
    parser.add_argument(
        "-s", "--speed",
        type=float,
        default=0.0,
        help="Velocità della voce, da -0.5 a 1.0 (default: 0)",
    )
    parser.add_argument(
        "--volume",
        type=float,
        default=DEFAULT_VOLUME,
        help=f"Volume delle affermazioni, da 0 a 1 (default: {DEFAULT_VOLUME})",
    )
    parser.add_argument(
        "--tempo",
        type=float,
        default=DEFAULT_TEMPO,
        help=f"Accelerazione delle affermazioni (default: {DEFAULT_TEMPO})",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        default=4,
        help="Richieste TTS in parallelo (default: 4)",
    )
    parser.add_argument(
        "--tts-retries",
        type=int,
        default=0,
        help="Tentativi aggiuntivi per affermazione in caso di errore TTS (default: 0)",
    )
    parser.add_argument(
        "--work-dir-root",
        default=None,
        help="Directory in cui creare le directory di lavoro dei job",
    )
    parser.add_argument(
        "--keep-work-dir",
        choices=[p.value for p in CleanupPolicy],
        default=CleanupPolicy.ALWAYS.value,
        help="Quando rimuovere la directory di lavoro (default: always)",
    )
    parser.add_argument(
        "--list-voices",
        action="store_true",
        help="Elenca le voci disponibili ed esci",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Abilita log dettagliati",
    )

    args = parser.parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    voices = VoiceCatalog()

    # Handle --list-voices
    if args.list_voices:
        found = voices.list(args.language if args.language != DEFAULT_LANGUAGE else None)
        print("\nVoci disponibili:\n")
        for v in found:
            print(f"  {v.id:<12} {v.engine:<12} {v.language:<8} {v.gender}")
        sys.exit(0)

    # Collect affirmations
    affirmations = list(args.affirmations)
    if args.file:
        path = Path(args.file)
        if not path.exists():
            parser.error(f"File non trovato: {path}")
        affirmations.extend(
            line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()
        )
    if not affirmations:
        parser.error("Specificare almeno un'affermazione")

    music = _load_music(parser, args)
    output_path = Path(args.output or "subliminal.mp3")

    # Check ffmpeg
    check_ffmpeg()

    # Import engines (triggers registration)
    from sublmnl.tts import import_engines
    import_engines()

    config = PipelineConfig(
        tempo=args.tempo,
        max_workers=args.workers,
        tts_retries=args.tts_retries,
        cleanup=CleanupPolicy(args.keep_work_dir),
    )
    if args.work_dir_root:
        config.work_root = Path(args.work_dir_root)

    request = SynthesisRequest(
        affirmations=affirmations,
        voice_id=args.voice,
        music_track_id=args.track if args.catalog else CLI_TRACK_ID,
        language=args.language,
        pitch=args.pitch,
        speed=args.speed,
        volume=args.volume,
    )

    # Run the pipeline
    from sublmnl.orchestrator import PipelineOrchestrator
    from sublmnl.progress import ProgressReporter

    orchestrator = PipelineOrchestrator(voices, music, config)

    # Created lazily on the first step, when the total is known
    progress = {"reporter": None}

    def on_progress(current: int, total: int, label: str) -> None:
        if progress["reporter"] is None:
            progress["reporter"] = ProgressReporter(total)
        progress["reporter"].update(current, total, label)

    try:
        result = orchestrator.run(request, output_path, on_progress=on_progress)
    except ValidationError as e:
        parser.error(str(e))
    except KeyboardInterrupt:
        print("\n\nGenerazione interrotta.")
        sys.exit(1)
    except PipelineError as e:
        logging.error("Errore in %s: %s", e.stage.value, e.cause)
        if args.verbose:
            logging.exception("Dettagli:")
        sys.exit(1)
    finally:
        if progress["reporter"]:
            progress["reporter"].close()

    print(
        f"\nTraccia creata: {result.final_path} "
        f"({result.fragment_count} affermazioni, {format_duration(result.music_duration)})"
    )


def _load_music(parser: argparse.ArgumentParser, args) -> MusicCatalog:
    if args.catalog:
        if not args.track:
            parser.error("--catalog richiede --track")
        return MusicCatalog.from_json(Path(args.catalog))

    if not args.music:
        parser.error("Specificare la traccia musicale con --music o --catalog/--track")
    music_path = Path(args.music)
    if not music_path.exists():
        parser.error(f"File non trovato: {music_path}")
    return MusicCatalog([
        MusicTrack(
            id=CLI_TRACK_ID,
            name=music_path.stem,
            path=music_path.resolve(),
            duration=args.music_duration,
        ),
    ])


if __name__ == "__main__":
    main()
