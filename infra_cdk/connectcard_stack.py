# infra_cdk/connectcard_stack.py
from pathlib import Path

from aws_cdk import (
    Stack,
    Duration,
    RemovalPolicy,
    CfnParameter,
    CfnOutput,
    aws_dynamodb as dynamodb,
    aws_events as events,
    aws_events_targets as targets,
    aws_lambda as _lambda,
    aws_s3 as s3,
)
from constructs import Construct

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class ConnectCardStack(Stack):
    """
    Directory tables, the storage bucket and the three directory jobs.
    The shared `connectcard` package is shipped as a layer built into
    `lambda_layer/` (pip install . -t lambda_layer/python).
    """

    def __init__(self, scope: Construct, construct_id: str, layer_path: str = str(PROJECT_ROOT / "lambda_layer"), **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # === Parameters for Deployment ===
        google_key_param = CfnParameter(self, "GooglePlacesApiKey", type="String", default="", no_echo=True,
            description="Google Places API key used by the review and place importers.")
        yelp_key_param = CfnParameter(self, "YelpApiKey", type="String", default="", no_echo=True,
            description="Yelp Fusion API key used by the review importer.")

        # === Directory Store ===
        business_table = dynamodb.Table(self, "BusinessCardTable",
            partition_key=dynamodb.Attribute(name="pk", type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name="sk", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.RETAIN,
        )
        business_table.add_global_secondary_index(
            index_name="bySlug",
            partition_key=dynamodb.Attribute(name="slug", type=dynamodb.AttributeType.STRING),
        )

        review_table = dynamodb.Table(self, "ReviewTable",
            partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.RETAIN,
        )
        review_table.add_global_secondary_index(
            index_name="externalId",
            partition_key=dynamodb.Attribute(name="externalId", type=dynamodb.AttributeType.STRING),
        )
        # "Get reviews for this business" sorted by rating
        review_table.add_global_secondary_index(
            index_name="businessId",
            partition_key=dynamodb.Attribute(name="businessId", type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name="rating", type=dynamodb.AttributeType.NUMBER),
        )

        saved_contact_table = dynamodb.Table(self, "SavedContactTable",
            partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.RETAIN,
        )
        # "Get my contacts"
        saved_contact_table.add_global_secondary_index(
            index_name="userId",
            partition_key=dynamodb.Attribute(name="userId", type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name="businessId", type=dynamodb.AttributeType.STRING),
        )

        # === Storage (public/businesses.json) ===
        storage_bucket = s3.Bucket(self, "StorageBucket",
            # Snapshot objects are written with a public-read ACL
            block_public_access=s3.BlockPublicAccess(
                block_public_acls=False,
                ignore_public_acls=False,
                block_public_policy=True,
                restrict_public_buckets=True,
            ),
            object_ownership=s3.ObjectOwnership.BUCKET_OWNER_PREFERRED,
            removal_policy=RemovalPolicy.RETAIN,
        )

        # === Shared Lambda Layer ===
        common_layer = _lambda.LayerVersion(self, "CommonLayer",
            code=_lambda.Code.from_asset(layer_path),
            compatible_runtimes=[_lambda.Runtime.PYTHON_3_12],
            description="connectcard package and its dependencies"
        )

        common_env = {
            "BUSINESS_CARD_TABLE_NAME": business_table.table_name,
            "REVIEW_TABLE_NAME": review_table.table_name,
            "SAVED_CONTACT_TABLE_NAME": saved_contact_table.table_name,
        }

        # === Snapshot Exporter ===
        generate_static_json_function = _lambda.Function(self, "GenerateStaticJsonFunction",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset(str(PROJECT_ROOT / "lambdas" / "generate_static_json")),
            handler="app.handler",
            timeout=Duration.seconds(60),  # Scans can take time
            memory_size=512,
            environment={**common_env, "STORAGE_BUCKET_NAME": storage_bucket.bucket_name},
            layers=[common_layer]
        )
        business_table.grant_read_data(generate_static_json_function)
        storage_bucket.grant_put(generate_static_json_function)
        storage_bucket.grant_put_acl(generate_static_json_function, "public/*")

        events.Rule(self, "HourlySnapshotRule",
            schedule=events.Schedule.rate(Duration.hours(1)),
            targets=[targets.LambdaFunction(generate_static_json_function)],
        )

        # === Review Importer ===
        import_reviews_function = _lambda.Function(self, "ImportReviewsFunction",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset(str(PROJECT_ROOT / "lambdas" / "import_reviews")),
            handler="app.handler",
            timeout=Duration.seconds(60),
            memory_size=256,
            environment={
                **common_env,
                "GOOGLE_PLACES_API_KEY": google_key_param.value_as_string,
                "YELP_API_KEY": yelp_key_param.value_as_string,
            },
            layers=[common_layer]
        )
        review_table.grant_read_write_data(import_reviews_function)

        # === Google place import ===
        import_from_google_function = _lambda.Function(self, "ImportFromGoogleFunction",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset(str(PROJECT_ROOT / "lambdas" / "import_from_google")),
            handler="app.handler",
            timeout=Duration.seconds(60),
            environment={"GOOGLE_PLACES_API_KEY": google_key_param.value_as_string},
            layers=[common_layer]
        )

        # === Outputs ===
        CfnOutput(self, "SnapshotUrl",
            value=f"https://{storage_bucket.bucket_regional_domain_name}/public/businesses.json",
            description="Public URL of the offline directory snapshot.")
        CfnOutput(self, "ImportReviewsFunctionName", value=import_reviews_function.function_name)
        CfnOutput(self, "ImportFromGoogleFunctionName", value=import_from_google_function.function_name)
