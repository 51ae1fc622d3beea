# SPDX-License-Identifier: Apache-2.0

ecsigtool_version = "1.0.0"
