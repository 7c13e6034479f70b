#!/usr/bin/env python3

import aws_cdk as cdk

from bricollano_stack import BricollanoStack

app = cdk.App()
BricollanoStack(
    app,
    "BricollanoStack",
)

app.synth()
