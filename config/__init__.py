"""Configuration package"""
from config.settings import Config, DevelopmentConfig, ProductionConfig
from config.testing import TestingConfig

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
