import argparse
import time

import torch

from facestyle.project import Project
from facestyle.src.errors import FaceStyleError


def main():
    """
    Main entry point for running the facestyle pipeline.
    Parses command-line arguments, initializes a Project, and runs it.
    """
    parser = argparse.ArgumentParser(
        description="Run landmark-driven facial style transfer on one image.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the project configuration YAML file.",
    )
    parser.add_argument(
        "--force-precomputation",
        action="store_true",
        default=None,
        help="Re-author the style (guides and lookup cube) even if it is stored.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Write results here instead of the configured output_dir.",
    )
    args = parser.parse_args()

    print("========================================")
    print("           Starting facestyle           ")
    print("========================================")

    if torch.cuda.is_available():
        print(f"CUDA is available: {torch.cuda.get_device_name(0)}")
    else:
        print("CUDA not found. Running on CPU.")

    start_time = time.time()

    try:
        print(f"\nLoading project with configuration: {args.config}")
        project = Project(
            config_path=args.config,
            overrides={
                "force_precomputation": args.force_precomputation,
                "output_dir": args.output_dir,
            },
        )
        project.run()

    except FileNotFoundError as e:
        print(f"\n[ERROR] A required file or directory was not found: {e}")
        print("Please check the paths in your configuration file.")
    except FaceStyleError as e:
        print(f"\n[ERROR] Invalid input: {e}")
    except Exception as e:
        print(f"\n[ERROR] An unexpected error occurred: {e}")
        import traceback

        traceback.print_exc()

    finally:
        end_time = time.time()
        print("\n----------------------------------------")
        print(f"Pipeline finished in {end_time - start_time:.2f} seconds.")
        print("========================================")


if __name__ == "__main__":
    main()
