"""Run one try-on from the command line.

Usage:
    style-mixer --garment dress.png --subject me.jpg --scene "snowy market at dusk"
    style-mixer --garment dress.png --subject me.jpg --scene "..." --animate --out results/
    style-mixer ... --interactive-key     # ask for the API key instead of reading GEMINI_API_KEY
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from stylemixer.assets import AssetStore, Slot, UploadedAsset
from stylemixer.auth import AuthGate, EnvCredentialProvider, InteractiveCredentialProvider
from stylemixer.controller import OrchestrationController, OrchestrationStatus
from stylemixer.errors import AuthConnectError


def _extension(mime_type: str, default: str) -> str:
    return mimetypes.guess_extension(mime_type or "") or default


async def run(args: argparse.Namespace) -> int:
    provider = InteractiveCredentialProvider() if args.interactive_key else EnvCredentialProvider()
    gate = AuthGate(provider)

    if not gate.check():
        try:
            gate.connect()
        except AuthConnectError as e:
            print(f"\nERROR: {e}")
            return 2

    assets = AssetStore()
    try:
        assets.set_asset(Slot.GARMENT, UploadedAsset.from_file(args.garment))
        assets.set_asset(Slot.SUBJECT, UploadedAsset.from_file(args.subject))
    except (OSError, ValueError) as e:
        print(f"\nERROR: {e}")
        return 2
    assets.scene_description = args.scene

    controller = OrchestrationController(assets=assets, auth_gate=gate)

    print("=" * 60)
    print("STYLE MIXER")
    print("=" * 60)

    result = await controller.generate()
    if controller.status != OrchestrationStatus.SUCCESS:
        print(f"\nERROR: {controller.error_message or 'Garment, subject and scene are required.'}")
        return 1

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    image_path = out_dir / f"composite{_extension(result.mime_type, '.png')}"
    image_path.write_bytes(result.image_bytes)
    print(f"\nComposite: {image_path}")

    if args.animate:
        print("Animating (this takes a few minutes)...")
        job = await controller.animate()
        if job is None:
            print(f"\nERROR: {controller.error_message}")
            return 1
        video_path = out_dir / f"animation{_extension(job.mime_type, '.mp4')}"
        video_path.write_bytes(job.result_bytes)
        print(f"Animation: {video_path}")

    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Dress a person in a garment and place them in a new scene",
    )
    parser.add_argument("--garment", required=True, help="Image of the clothing (Image 1)")
    parser.add_argument("--subject", required=True, help="Image of the person (Image 2)")
    parser.add_argument("--scene", required=True, help="Scene description")
    parser.add_argument("--animate", action="store_true", help="Also render a short live-photo clip")
    parser.add_argument("--out", default=".", help="Output directory (default: current directory)")
    parser.add_argument(
        "--interactive-key",
        action="store_true",
        help="Prompt for the API key instead of reading GEMINI_API_KEY",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every poll")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
