# This module handles conversation context

# +---------------------+
# |      Memory         |   (Durable, append-only, external)
# |---------------------|
# | Finished turns      |
# | Tool call summaries |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled fresh for every run)
# |------------------------------|
# | Prior turns (user/assistant) |
# | Function calls + outputs     |
# | Reasoning items              |
# | Persona instructions, date   |
# +------------------------------+
#         |
#         v
#   [completion service / tool call]
