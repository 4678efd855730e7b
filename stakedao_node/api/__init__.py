# stakedao_node/api package
