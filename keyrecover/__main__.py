#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import sys

from keyrecover.launch import cli


sys.exit(cli())
