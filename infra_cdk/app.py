# infra_cdk/app.py
import os

import aws_cdk as cdk

from connectcard_stack import ConnectCardStack

app = cdk.App()
ConnectCardStack(app, "ConnectCardStack",
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=os.getenv("CDK_DEFAULT_REGION"),
    ),
)
app.synth()
