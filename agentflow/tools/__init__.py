"""Tool manifests, the kind registry and the built-in http and exec tool kinds."""