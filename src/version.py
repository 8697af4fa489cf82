VERSION = "0.1.0"
BUILD_TIMESTAMP = "dev"
