import logging
import subprocess
from pathlib import Path

import jsii
from aws_cdk import BundlingOptions, ILocalBundling
from aws_cdk import aws_lambda as _lambda
from constructs import Construct

logger = logging.getLogger(__name__)

LAYER_SOURCE_PATH = "layers/common_layer"
# Lambda 実行環境（x86_64 / Amazon Linux）向けのホイールを取得する
LAMBDA_PLATFORM = "manylinux2014_x86_64"
LAMBDA_PYTHON_VERSION = "3.14"


@jsii.implements(ILocalBundling)
class PythonLocalBundling:
    """ローカル環境で依存ライブラリをインストールする Bundling クラス

    pydantic-core などバイナリを含むパッケージがあるため、
    ローカルの OS に関係なく Lambda 用のホイールをインストールする。
    """

    def __init__(self, source_path: str) -> None:
        self.source_path = source_path

    def try_bundle(self, output_dir: str, options: BundlingOptions) -> bool:
        """ローカルでバンドリングを試行する。

        Returns:
            True: バンドリング成功（Dockerをスキップ）
            False: バンドリング失敗（Dockerにフォールバック）
        """
        del options  # unused
        requirements_path = Path(self.source_path) / "requirements.txt"
        target_dir = Path(output_dir) / "python"

        if not requirements_path.exists():
            logger.warning("requirements.txt not found: %s", requirements_path)
            return False

        for installer in (self.uv_command, self.pip_command):
            if self._run(installer(requirements_path, target_dir)):
                return True

        logger.warning("Local bundling failed, falling back to Docker")
        return False

    @staticmethod
    def uv_command(requirements_path: Path, target_dir: Path) -> list[str]:
        return [
            "uv",
            "pip",
            "install",
            "-r",
            str(requirements_path),
            "--target",
            str(target_dir),
            "--python-platform",
            "x86_64-manylinux2014",
            "--python-version",
            LAMBDA_PYTHON_VERSION,
            "--only-binary",
            ":all:",
            "--quiet",
        ]

    @staticmethod
    def pip_command(requirements_path: Path, target_dir: Path) -> list[str]:
        return [
            "pip",
            "install",
            "-r",
            str(requirements_path),
            "-t",
            str(target_dir),
            "--platform",
            LAMBDA_PLATFORM,
            "--python-version",
            LAMBDA_PYTHON_VERSION,
            "--only-binary=:all:",
            "--quiet",
        ]

    def _run(self, command: list[str]) -> bool:
        tool = command[0]
        try:
            logger.info("Trying local bundling with %s...", tool)
            subprocess.run(command, check=True)
        except FileNotFoundError:
            logger.debug("%s not found", tool)
            return False
        except subprocess.CalledProcessError as e:
            logger.debug("%s install failed: %s", tool, e)
            return False
        logger.info("Local bundling with %s succeeded", tool)
        return True


class Layers(Construct):
    """Lambda Layers Construct"""

    def __init__(self, scope: Construct, id: str) -> None:
        super().__init__(scope, id)

        self.common_layer = _lambda.LayerVersion(
            self,
            "CommonLayer",
            code=_lambda.Code.from_asset(
                LAYER_SOURCE_PATH,
                bundling=BundlingOptions(
                    image=_lambda.Runtime.PYTHON_3_14.bundling_image,
                    command=[
                        "bash",
                        "-c",
                        "pip install -r requirements.txt -t /asset-output/python",
                    ],
                    local=PythonLocalBundling(LAYER_SOURCE_PATH),
                ),
            ),
            compatible_runtimes=[_lambda.Runtime.PYTHON_3_14],
            description="Powertools, pydantic, Stripe and httpx for booking/payment",
        )
