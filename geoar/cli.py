"""
Command-line interface for GeoAR coordinate tools.

Usage:
    geoar to-enu LAT LON H --ref LAT LON H
    geoar to-geodetic E N U --ref LAT LON H
    geoar to-ecef LAT LON H
    geoar relative CAM_LAT CAM_LON CAM_H OBJ_LAT OBJ_LON OBJ_H
    geoar cell LAT LON [--resolution N]
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import Config
from .geodesy import enu_to_geodetic, geodetic_to_ecef, geodetic_to_enu
from .placement import get_relative_global_position, place_relative_to_camera
from .poses import GeoPose, GeodeticPosition
from .sync.cells import spatial_cell_id


def setup_logging(verbose: bool = False, level: str = 'INFO') -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else getattr(logging, level)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def _cmd_to_enu(args, config: Config) -> None:
    east, north, up = geodetic_to_enu(args.lat, args.lon, args.h, *args.ref)
    print(f"E: {east:.4f}  N: {north:.4f}  U: {up:.4f}")


def _cmd_to_geodetic(args, config: Config) -> None:
    pos = enu_to_geodetic([args.e, args.n, args.u], *args.ref)
    print(f"lat: {pos.lat:.9f}  lon: {pos.lon:.9f}  h: {pos.h:.4f}")


def _cmd_to_ecef(args, config: Config) -> None:
    x, y, z = geodetic_to_ecef(args.lat, args.lon, args.h)
    print(f"X: {x:.4f}  Y: {y:.4f}  Z: {z:.4f}")


def _cmd_relative(args, config: Config) -> None:
    camera = GeoPose(GeodeticPosition(args.cam_lat, args.cam_lon, args.cam_h))
    obj = GeoPose(GeodeticPosition(args.obj_lat, args.obj_lon, args.obj_h))
    dx, dy, dz = get_relative_global_position(camera, obj)
    local = place_relative_to_camera(camera, obj)
    x, y, z = local.position
    print(f"East: {dx:.3f}  North: {dy:.3f}  Up: {dz:.3f}")
    print(f"Local position: ({x:.3f}, {y:.3f}, {z:.3f})")


def _cmd_cell(args, config: Config) -> None:
    resolution = args.resolution if args.resolution is not None else config.sync.cell_resolution
    print(spatial_cell_id(args.lat, args.lon, resolution))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='geoar',
        description='Geodetic conversions and content placement helpers for GeoAR sessions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # ENU offset of a point relative to a reference
    geoar to-enu 46.5197 6.5663 400 --ref 46.5190 6.5660 395

    # Offset of an object relative to the camera
    geoar relative 50.06632 -5.71475 0 58.64402 -3.07009 0

    # Spatial cell of a position
    geoar cell 46.5197 6.5663 --resolution 9
'''
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    p = subparsers.add_parser('to-enu', help='Geodetic position to ENU offset from a reference')
    p.add_argument('lat', type=float)
    p.add_argument('lon', type=float)
    p.add_argument('h', type=float)
    p.add_argument('--ref', type=float, nargs=3, required=True, metavar=('LAT', 'LON', 'H'))
    p.set_defaults(func=_cmd_to_enu)

    p = subparsers.add_parser('to-geodetic', help='ENU offset from a reference to geodetic position')
    p.add_argument('e', type=float)
    p.add_argument('n', type=float)
    p.add_argument('u', type=float)
    p.add_argument('--ref', type=float, nargs=3, required=True, metavar=('LAT', 'LON', 'H'))
    p.set_defaults(func=_cmd_to_geodetic)

    p = subparsers.add_parser('to-ecef', help='Geodetic position to ECEF')
    p.add_argument('lat', type=float)
    p.add_argument('lon', type=float)
    p.add_argument('h', type=float)
    p.set_defaults(func=_cmd_to_ecef)

    p = subparsers.add_parser('relative', help='Object offset relative to a camera GeoPose')
    for name in ('cam_lat', 'cam_lon', 'cam_h', 'obj_lat', 'obj_lon', 'obj_h'):
        p.add_argument(name, type=float)
    p.set_defaults(func=_cmd_relative)

    p = subparsers.add_parser('cell', help='Spatial cell id of a position')
    p.add_argument('lat', type=float)
    p.add_argument('lon', type=float)
    p.add_argument('--resolution', '-r', type=int, default=None,
                   help='H3 resolution (default: from config, 8)')
    p.set_defaults(func=_cmd_cell)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = logging.getLogger(__name__)

    try:
        config = Config.from_yaml(args.config) if args.config else Config()
        setup_logging(args.verbose, config.logging.level)
        logger.debug(f"Running {args.command}")
        args.func(args, config)
        return 0

    except FileNotFoundError as e:
        setup_logging(args.verbose)
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        # InvalidInputError is a ValueError too
        setup_logging(args.verbose)
        logger.error(f"Invalid input: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
