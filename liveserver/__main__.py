import argparse
import asyncio
import logging
import os
import sys
import webbrowser

from .config import LiveServerConfig
from .errors import LiveServerError
from .paths import find_git_root
from .registry import InstanceRegistry
from .server import url_for

logger = logging.getLogger("liveserver")


def parse_header(value):
    name, sep, header_value = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return name.strip(), header_value.strip()


def build_parser(defaults: LiveServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="liveserver",
        description="Serve a directory on 127.0.0.1 and reload browsers when files change",
    )
    parser.add_argument("target", nargs="?", help="file or directory to serve (default: current directory)")
    parser.add_argument("--port", type=int, default=defaults.default_port)
    parser.add_argument("--git-root", action="store_true", help="serve the enclosing git repository root")
    parser.add_argument("--no-open", action="store_true", help="do not open a browser")
    parser.add_argument("--no-live", action="store_true", help="disable file watching and reload events")
    parser.add_argument("--no-inject", action="store_true", help="do not inject the reload script into HTML")
    parser.add_argument("--debounce", type=int, default=defaults.live_reload.debounce, metavar="MS")
    parser.add_argument("--no-css-hot-swap", action="store_true", help="reload the page for stylesheet changes too")
    parser.add_argument("--no-dir-listing", action="store_true")
    parser.add_argument("--show-hidden", action="store_true", help="list dotfiles in directory listings")
    parser.add_argument("--cors", nargs="?", const="*", default=defaults.cors, metavar="ORIGIN",
                        help="send Access-Control-Allow-Origin (default origin: *)")
    parser.add_argument("--header", action="append", type=parse_header, default=[], metavar="NAME=VALUE")
    parser.add_argument("--index", action="append", dest="index_names", metavar="NAME",
                        help="index filename, repeatable (default: index.html, index.htm)")
    parser.add_argument("--log-level", default=defaults.log_level)
    return parser


def config_from_args(args, defaults: LiveServerConfig) -> LiveServerConfig:
    overrides = {
        "default_port": args.port,
        "open_on_start": defaults.open_on_start and not args.no_open,
        "headers": dict(args.header),
        "cors": args.cors,
        "log_level": args.log_level,
        "live_reload": {
            "enabled": not args.no_live,
            "inject_script": not args.no_inject,
            "debounce": args.debounce,
            "css_hot_swap": not args.no_css_hot_swap,
        },
        "directory_listing": {
            "enabled": not args.no_dir_listing,
            "show_hidden": args.show_hidden,
        },
    }
    if args.index_names:
        overrides["index_names"] = args.index_names
    config = defaults.merged(overrides)
    config.validate()
    return config


async def serve(config: LiveServerConfig, target) -> None:
    registry = InstanceRegistry(config)
    port = config.default_port
    try:
        await registry.start(port, target)
        if config.open_on_start:
            await asyncio.get_running_loop().run_in_executor(None, webbrowser.open, url_for(port))
        print(f"Live server running at {url_for(port)} (Ctrl+C to stop)")
        await asyncio.Event().wait()
    finally:
        await registry.stop_all()


def main(argv=None) -> int:
    defaults = LiveServerConfig.from_env()
    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args, defaults)
    except (ValueError, KeyError) as e:
        parser.error(str(e))

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    target = args.target
    if args.git_root:
        target = find_git_root() or os.getcwd()

    try:
        asyncio.run(serve(config, target))
    except LiveServerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
