import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)
# ───────────────────────────────────────────

from ..models.exceptions import SurfaceVizError
from ..models.overlay import BlendMode, OverlayConfig
from ..models.texture import Texture
from ..pipeline.visualize_surface import visualize_surface
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="surfaceviz",
        description="Detect a floor or window in a photo and lay a texture over it.",
    )
    parser.add_argument("photo", type=Path, help="room photo")
    parser.add_argument("texture", type=Path, help="texture tile image")
    parser.add_argument("--surface", choices=["floor", "window"], default="floor")
    parser.add_argument("--out", type=Path, required=True, help="output file (.jpg or .png)")
    parser.add_argument("--opacity", type=float, default=0.85)
    parser.add_argument(
        "--blend-mode", choices=[m.value for m in BlendMode], default=BlendMode.MULTIPLY.value
    )
    parser.add_argument("--tile-size", type=int, default=0, help="tile width in px, 0 keeps native size")
    parser.add_argument("--no-feather", action="store_true", help="keep hard mask edges")
    parser.add_argument("--no-lighting", action="store_true", help="skip lighting preservation")
    parser.add_argument(
        "--perspective", action="store_true", help="map the texture onto the detected boundary"
    )
    parser.add_argument("--quality", type=int, default=None, help="JPEG quality (default: JPEG_QUALITY)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    image_repository = ImageRepository()

    try:
        photo = image_repository.load(args.photo)
        texture = Texture(identifier=args.texture.stem, image=image_repository.load(args.texture))
        config = OverlayConfig(
            opacity=args.opacity,
            blend_mode=BlendMode(args.blend_mode),
            tile_size=args.tile_size,
            feather_edges=not args.no_feather,
            preserve_lighting=not args.no_lighting,
            perspective=None,
        )

        print(f"\nVisualizing {texture.identifier} on the {args.surface} of {args.photo.name}...")
        output, result = visualize_surface(
            photo,
            texture.image,
            args.surface,
            config,
            use_detected_perspective=args.perspective,
        )
        image_repository.save(output, args.out, quality=args.quality)
    except (SurfaceVizError, FileNotFoundError) as err:
        logger.error(f"{err}")
        return 1

    print(f"Surface coverage: {result.mask.coverage() * 100:.1f}% (confidence {result.confidence:.2f})")
    if result.boundary is not None:
        corners = ", ".join(f"({p.x:.0f}, {p.y:.0f})" for p in result.boundary.corners())
        print(f"Boundary: {corners}")
    print(f"Result saved to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
