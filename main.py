"""
Template alignment command line.

Stages:
    estimate   Rigid transform between two row-corresponding clouds
    transform  Apply a 4x4 matrix file to a cloud
    match      Pick the best template for a target cloud (FPFH + SAC-IA)
    icp        Refine a source cloud onto a target cloud

Environment Variables:
    NORMAL_RADIUS, FEATURE_RADIUS: neighbourhood radii (default: 0.02)
    SAC_ITERATIONS: coarse alignment iterations (default: 500)
    ICP_ITERATIONS: ICP iteration budget (default: 50)
    TEMPLATE_ALIGN_LOG_DIR: log directory (default: template_align/config/logs)

CLI Usage:
    python main.py match scene.pcd object_templates.txt -o output.pcd
    python main.py icp output.pcd scene.pcd -r ICPresult.txt
"""
import argparse
import sys

from template_align.core.config import settings
from template_align.core.errors import TemplateAlignError
from template_align.core.logging_config import get_logger
from template_align.modules.cloud.io import load_transformation
from template_align.modules.pipeline import (
    PipelineBuilder,
    Stage,
    format_transformation,
    run_pipeline,
)

logger = get_logger(__name__)


def get_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Align object templates to a target point cloud."
    )
    subparsers = parser.add_subparsers(dest="stage", required=True)

    estimate = subparsers.add_parser(Stage.ESTIMATE_TRANSFORM.value, help="Estimate a rigid transform.")
    estimate.add_argument("source", type=str, help="Path to the source cloud.")
    estimate.add_argument("target", type=str, help="Path to the corresponding target cloud.")

    transform = subparsers.add_parser(Stage.TRANSFORM.value, help="Apply a transform to a cloud.")
    transform.add_argument("cloud", type=str, help="Path to the cloud to transform.")
    transform.add_argument("matrix", type=str, help="Plain-text 4x4 matrix file.")
    transform.add_argument("-o", "--output", type=str, default="transformed.pcd", help="Output cloud path.")

    match = subparsers.add_parser(Stage.TEMPLATE_MATCH.value, help="Find the best matching template.")
    match.add_argument("target", type=str, help="Path to the target cloud.")
    match.add_argument("templates", type=str, help="Template list file, one cloud path per line.")
    match.add_argument("-o", "--output", type=str, default=settings.MATCH_OUTPUT, help="Aligned template output path.")
    match.add_argument("--normal_radius", type=float, default=settings.NORMAL_RADIUS, help="Normal estimation radius.")
    match.add_argument("--feature_radius", type=float, default=settings.FEATURE_RADIUS, help="FPFH radius.")
    match.add_argument("--voxel_size", type=float, default=settings.VOXEL_SIZE, help="Target voxel size, <= 0 disables.")
    match.add_argument("-i", "--iterations", type=int, default=settings.SAC_ITERATIONS, help="SAC-IA iterations.")
    match.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs.")

    icp = subparsers.add_parser(Stage.ICP.value, help="Refine an alignment with ICP.")
    icp.add_argument("source", type=str, help="Path to the source cloud.")
    icp.add_argument("target", type=str, help="Path to the target cloud.")
    icp.add_argument("-r", "--result", type=str, default=settings.ICP_RESULT_FILE, help="Matrix output file.")
    icp.add_argument("-i", "--max_iter", type=int, default=settings.ICP_ITERATIONS, help="Maximum ICP iterations.")
    icp.add_argument("-t", "--tol", type=float, default=settings.TRANSFORMATION_EPSILON, help="Transformation epsilon.")
    icp.add_argument("-d", "--threshold", type=float, default=None, help="Max correspondence distance.")

    return parser


def build_config(args: argparse.Namespace):
    builder = PipelineBuilder()
    if args.stage == Stage.ESTIMATE_TRANSFORM.value:
        builder.estimate_transform(args.source, args.target)
    elif args.stage == Stage.TRANSFORM.value:
        builder.transform(args.cloud, load_transformation(args.matrix), args.output)
    elif args.stage == Stage.TEMPLATE_MATCH.value:
        builder.template_match(
            args.target,
            args.templates,
            output_path=args.output,
            feature_config={"normal_radius": args.normal_radius, "feature_radius": args.feature_radius},
            alignment_config={"sac_iterations": args.iterations, "seed": args.seed},
            voxel_size=args.voxel_size
        )
    else:
        builder.icp(
            args.source,
            args.target,
            result_path=args.result,
            icp_config={
                "icp_iterations": args.max_iter,
                "transformation_epsilon": args.tol,
                "icp_threshold": args.threshold,
            }
        )
    return builder.build()


def report(stage: Stage, result):
    if stage == Stage.ESTIMATE_TRANSFORM:
        print("The estimated rotation and translation are:")
        print(format_transformation(result))
    elif stage == Stage.TRANSFORM:
        print(f"Transformed cloud: {len(result)} points")
    elif stage == Stage.TEMPLATE_MATCH:
        print(f"Best template: #{result.index} {result.template_name}")
        print(f"Best fitness score: {result.result.fitness_score:f} ({result.quality})")
        print(format_transformation(result.result.transformation))
    elif stage == Stage.ICP:
        print(f"has converged: {result.converged} score: {result.fitness_score}")
        print(result.transformation)


def main(argv=None) -> int:
    args = get_argparser().parse_args(argv)
    try:
        for stage, result in run_pipeline(build_config(args)):
            report(stage, result)
    except TemplateAlignError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
