# FanAI generation core
