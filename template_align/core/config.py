import os

PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Settings:
    PROJECT_NAME: str = "Template Alignment"
    VERSION: str = "0.1.0"

    # Logging
    LOG_DIR: str = os.getenv("TEMPLATE_ALIGN_LOG_DIR", os.path.join(PACKAGE_DIR, "config", "logs"))
    LOG_LEVEL: str = os.getenv("TEMPLATE_ALIGN_LOG_LEVEL", "INFO")

    # Feature estimation (same units as the clouds)
    NORMAL_RADIUS: float = float(os.getenv("NORMAL_RADIUS", 0.02))
    FEATURE_RADIUS: float = float(os.getenv("FEATURE_RADIUS", 0.02))
    DEGENERATE_POLICY: str = os.getenv("DEGENERATE_POLICY", "exclude")  # "exclude" or "raise"

    # Sample consensus initial alignment
    MIN_SAMPLE_DISTANCE: float = float(os.getenv("MIN_SAMPLE_DISTANCE", 0.05))
    MAX_CORRESPONDENCE_DISTANCE: float = float(os.getenv("MAX_CORRESPONDENCE_DISTANCE", 0.01 * 0.01))
    SAC_ITERATIONS: int = int(os.getenv("SAC_ITERATIONS", 500))
    VOXEL_SIZE: float = float(os.getenv("VOXEL_SIZE", 0.0))  # <= 0 disables

    # ICP refinement
    ICP_ITERATIONS: int = int(os.getenv("ICP_ITERATIONS", 50))
    TRANSFORMATION_EPSILON: float = float(os.getenv("TRANSFORMATION_EPSILON", 1e-6))
    FITNESS_EPSILON: float = float(os.getenv("FITNESS_EPSILON", 1e-10))

    # Output files
    MATCH_OUTPUT: str = os.getenv("MATCH_OUTPUT", "output.pcd")
    ICP_RESULT_FILE: str = os.getenv("ICP_RESULT_FILE", "ICPresult.txt")


settings = Settings()
